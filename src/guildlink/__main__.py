from guildlink.client.launcher import main


if __name__ == "__main__":
    main()
