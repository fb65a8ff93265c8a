"""LearnHub API: accounts, sessions and gamified learning progress."""
