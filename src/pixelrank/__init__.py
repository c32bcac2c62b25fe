"""PixelRank: top-5 image classification with an ONNX model."""

__version__ = "0.1.0"
