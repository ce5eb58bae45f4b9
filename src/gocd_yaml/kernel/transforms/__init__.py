"""Forward (dialect -> record) and inverse (record -> dialect) transforms."""

from gocd_yaml.kernel.transforms.base import TransformContext
from gocd_yaml.kernel.transforms.root import PartialConfig, RootTransform

__all__ = ["PartialConfig", "RootTransform", "TransformContext"]
