"""Daily Tracker: habit and goal tracking with AI-generated coaching content."""
