"""Prompt Optimization Implementations.

Token counting, chunk planning and per-chunk instruction composition.
Bounded Context: Prompt Optimization / Token Management
"""
