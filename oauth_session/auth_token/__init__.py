"""OAuth token lifecycle: session coordinator and its collaborators."""
