"""HTML fixtures shared by the test suite."""
