from backendstatus.main import main

main()
