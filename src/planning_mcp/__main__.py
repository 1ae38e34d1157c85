from planning_mcp.server import serve

if __name__ == "__main__":
    serve()
