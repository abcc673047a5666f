from agentbox.main import main

main()
