import asyncio
import sys
from ethtrader.server import main as run_server

def main():
    """Launch the ETH Trader MCP Server"""
    # stdout carries the stdio transport
    print("Starting ETH Trader MCP Server...", file=sys.stderr)
    asyncio.run(run_server())

if __name__ == "__main__":
    main()
