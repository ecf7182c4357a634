"""HTTP surface of the feed core."""
