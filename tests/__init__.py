"""Test package for StrabPlay.

Core modules are tested against a fake clock and scripted randomness; the
pygame shell is exercised headlessly through SDL's dummy video driver.
Run ``pytest`` from the project root.
"""
