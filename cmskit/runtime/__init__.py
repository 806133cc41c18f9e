"""Generic model, repository and controller configured by descriptors."""
