"""Version-control and issue-tracker clients."""
