from ubuntu_post_install.cli import main

if __name__ == "__main__":
    main()
