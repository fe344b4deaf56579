"""Admin GraphQL documents used by the media service."""

# Fragments shared by every query/mutation that returns File nodes. GenericFile
# exposes a raw ``url``; MediaImage and Video expose ``originalSource``.
_FILE_NODE_FIELDS = """
        __typename
        id
        ... on MediaImage {
          alt
          preview { image { url } }
          image { url width height altText }
          originalSource { url }
        }
        ... on GenericFile {
          alt
          url
          preview { image { url } }
        }
        ... on Video {
          alt
          preview { image { url } }
          originalSource { url }
        }
"""

Q_FILES_LIST = """
  query FilesList($first: Int!, $after: String) {
    files(first: $first, after: $after) {
      pageInfo { hasNextPage endCursor }
      nodes {%s}
    }
  }
""" % _FILE_NODE_FIELDS

Q_FILES_BY_IDS = """
  query FilesByIds($ids: [ID!]!) {
    nodes(ids: $ids) {%s}
  }
""" % _FILE_NODE_FIELDS

M_STAGED_UPLOADS_CREATE = """
  mutation StagedUploads($inputs: [StagedUploadInput!]!) {
    stagedUploadsCreate(input: $inputs) {
      stagedTargets {
        resourceUrl
        url
        parameters { name value }
      }
      userErrors { field message }
    }
  }
"""

M_FILE_CREATE = """
  mutation FileCreate($files: [FileCreateInput!]!) {
    fileCreate(files: $files) {
      files {%s}
      userErrors { field message }
    }
  }
""" % _FILE_NODE_FIELDS
