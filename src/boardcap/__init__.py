"""
Board Capture OCR
=================

Turns a photograph of a whiteboard, blackboard or flip chart into an
OCR-ready image and reconstructs the recognized text into lines and
paragraphs.

Main components:
- Board boundary detection and cropping
- Fail-open enhancement pipeline (contrast, desaturate, sharpen, rectify, denoise)
- Text recognition with confidence scoring
- Line and paragraph clustering
- Word count, reading time and confidence metrics
"""

__version__ = "1.0.0"
__author__ = "Board Capture Team"
