#!/usr/bin/env python3

"""Domain layer: extracted types, locations and variables."""
