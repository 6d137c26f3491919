"""Timer accounting engine: pure state, no terminal I/O."""
