"""SDK development scripts.

Provides the typed CLI, process orchestration, git helpers and the build, lint,
test, coverage and publish runners for the TypeScript SDK repository.
"""
