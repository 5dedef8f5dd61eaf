"""Campus assistant backend"""
