"""Repository validators for SDK packages.

This package hosts guard scripts that enforce publishing standards such as:
- No link: dependency specifiers in package.json
- Bundled and external packages agree with the declared dependencies
- No public CDN references and esbuild minification left off
- Markdown naming, file size and staged file count limits

These checks are wired into `sdk-scripts check` and `sdk-scripts validate`.
"""
