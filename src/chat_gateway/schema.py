"""
GraphQL schema for the chat gateway

Pure contract: the resolver set in ``resolvers`` supplies the behaviour.
"""

from graphql import GraphQLSchema, build_schema

TYPE_DEFS = '''
"""
Chat message input
"""
input ChatInput {
  """
  Message sent by the user
  """
  prompt: String!

  """
  Sampling temperature, controls randomness of the reply (0.0-1.0)
  """
  temperature: Float = 0.7

  """
  Maximum number of tokens to generate
  """
  maxTokens: Int = 512

  """
  Top-p sampling parameter
  """
  topP: Float = 0.7

  """
  Top-k sampling parameter
  """
  topK: Int = 50

  """
  Frequency penalty
  """
  frequencyPenalty: Float = 0.5
}

"""
Chat completion
"""
type ChatResponse {
  """
  Generated reply
  """
  content: String!

  """
  Model that produced the reply
  """
  model: String!

  """
  Generation time, ISO-8601
  """
  timestamp: String!

  """
  Tokens used by the provider call
  """
  tokensUsed: Int
}

"""
Error information
"""
type Error {
  message: String!
  code: String!
}

"""
Service status
"""
type ServiceStatus {
  healthy: Boolean!
  model: String!
  version: String!
  lastCheck: String!
}

type Query {
  """
  Service status
  """
  status: ServiceStatus!

  """
  Models this service can answer with
  """
  supportedModels: [String!]!
}

type Mutation {
  """
  Send a chat message and get the model's reply
  """
  chat(input: ChatInput!): ChatResponse!
}

type Subscription {
  """
  Streaming chat reply, reserved for token streaming
  """
  chatStream(input: ChatInput!): ChatResponse!
}
'''


def build_gateway_schema() -> GraphQLSchema:
    """Build the executable schema from the type definitions."""
    return build_schema(TYPE_DEFS)
