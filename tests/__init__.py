"""Tests of the vispredict package."""
