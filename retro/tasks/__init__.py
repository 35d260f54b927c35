"""Task runners and the registry that creates them by name."""