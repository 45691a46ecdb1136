"""Client-side components: repository client, sync engine and CLI."""
