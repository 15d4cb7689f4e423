"""HTTP gateway and UI push channel."""
