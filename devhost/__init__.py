"""devhost - plugin host with workspace auto-discovery and hot reload."""
