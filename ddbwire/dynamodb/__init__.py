"""DynamoDB wire client.

This package centralizes:
- the typed value codec (native values <-> AttributeValue shape)
- request signing and the httpx transport
- the request execution engine and its retry/backoff policy
- typed, expressive errors for every failure class
- per-operation payload builders and cursor pagination tokens

"""
