from pggateway.server import main

main()
