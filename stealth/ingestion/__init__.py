"""Signal ingestion: source adapters, adapter registry and orchestrator."""
