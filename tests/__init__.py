"""Test suite package marker so ``tests.helpers`` imports resolve."""
