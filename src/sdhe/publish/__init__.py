from sdhe.publish.run import Publish, indicators_to_snapshot

__all__ = ["Publish", "indicators_to_snapshot"]
