"""Business services and their stores."""
