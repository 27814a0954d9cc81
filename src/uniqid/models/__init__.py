"""Data models: commitments, registration state and the holder's identity package."""
