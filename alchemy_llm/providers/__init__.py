"""OpenAI-compatible and z.ai streaming clients and their shared request and stream handling."""