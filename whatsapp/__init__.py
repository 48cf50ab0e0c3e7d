"""WhatsApp Web session, group listing and participant lookup."""
