"""Template domain module - template records, typed sections and resolution."""
