"""The extraction loop and its helpers."""
