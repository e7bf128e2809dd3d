"""Services for worship-sound: classification, search and playback."""
