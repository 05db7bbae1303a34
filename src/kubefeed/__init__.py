"""KubeFeed: reconciles cluster state for a vertical autoscaling recommender."""

__version__ = "0.1.0"
