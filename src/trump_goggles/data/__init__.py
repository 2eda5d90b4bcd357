"""Static data shipped with the package."""
