"""Transport adapters exposing QueryService over REST, GraphQL, gRPC, gRPC-Web, WebSocket and SSE."""
