"""quarry — ingest notes and web pages, ask cited questions over them."""
