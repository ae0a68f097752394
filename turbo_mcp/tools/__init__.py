"""Tool requests, schemas, output decoders and the dispatcher."""
