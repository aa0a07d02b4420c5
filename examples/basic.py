# Parse ORM Examples

# Meant to be run cell by cell (select a block and execute it), or as a script against a running Parse Server.
# Use the comments as cell definitions.

# Load requirements

import logging

from dotenv import load_dotenv

from parse_orm import BelongsTo, HasMany, HasManyArray, ObjectModel, ParseClient, ParseConfig, Query, pagination_context

logging.basicConfig(level=logging.INFO)

# Load environnement from .env (PARSE_APP_ID, PARSE_REST_KEY, PARSE_SERVER_URL and optionally PARSE_MASTER_KEY)
load_dotenv()

ParseClient.initialize(ParseConfig.from_env())


# Declare models. The Parse class name defaults to the Python class name.
class Author(ObjectModel):
    posts = HasMany("Post", "author")


class Category(ObjectModel):
    owner = BelongsTo("Author")


class Post(ObjectModel):
    author = BelongsTo("Author")
    categories = HasManyArray("Category")


def create_posts():
    ada = Author.create({"name": "Ada"})
    python = Category.create({"name": "Python", "owner": ada})

    post = Post.create({"title": "Hello Parse", "views": 10, "author": ada})
    post.relation("categories").save(python)

    ada.relation("posts").create({"title": "Second post", "views": 250})
    print("Posts created:", ada.posts)


def popular_posts():
    posts = Post.where("views", ">=", 100).with_("author", "categories.owner").order_by("views", "desc").get()
    for post in posts:
        print(post.title, post.author.name, [c.owner.name for c in post.categories])


def either_or():
    query = Query.or_queries(Post.where("views", "<", 20), lambda q: q.starts_with("title", "Second"))
    print(query.get().pluck("title"))


def paginate_posts():
    with pagination_context(params={"page": "1"}, path="/posts"):
        page = Post.query().order_by("createdAt", "desc").paginate(per_page=20)
    print(f"{len(page)} of {page.total} posts, last page {page.last_page}, next: {page.next_page_url}")


def walk_posts():
    def touch(batch):
        for post in batch:
            post.update({"views": post.get("views", 0) + 1})

    Post.query().chunk_by_id(100, touch)


def delete_posts():
    Post.query().each_by_id(lambda post: post.destroy())
    Category.query().each_by_id(lambda category: category.destroy())
    Author.query().each_by_id(lambda author: author.destroy())


def main():
    create_posts()
    popular_posts()
    either_or()
    paginate_posts()
    walk_posts()
    delete_posts()


if __name__ == "__main__":
    main()
