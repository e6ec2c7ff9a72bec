# Service classes sit between routers and the database or AI client.
# Each one owns a feature's SQL and orchestration so routers only parse input and wrap output.
