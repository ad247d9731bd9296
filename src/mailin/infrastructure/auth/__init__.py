"""Authentication validator adapters."""

from .dkim_spf_validator import DkimSpfValidator, is_validator_runtime_available

__all__ = ["DkimSpfValidator", "is_validator_runtime_available"]
