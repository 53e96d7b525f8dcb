# Infrastructure: configuration, logging, errors, auth, storage, startup
