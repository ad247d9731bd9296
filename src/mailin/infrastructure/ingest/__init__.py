"""SMTP ingest: MIME parsing, aiosmtpd handler and listener."""
