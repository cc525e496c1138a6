from zulipbot.app import main

main()
