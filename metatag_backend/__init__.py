"""MetaTag Genie backend: MCP server writing descriptive metadata into images."""
