"""tacmap: annotate a tactical map with targets, own forces and areas."""
